"""
Fatal parse failures. Each carries an Arabic message meant to be shown to the
end user as-is; anything recoverable goes to the warnings list instead.
"""
from __future__ import annotations


class SheetParseError(ValueError):
    default_message = "خطأ في قراءة الملف. تأكد من أن الملف بصيغة Excel صحيحة"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnreadableWorkbookError(SheetParseError):
    default_message = "خطأ في قراءة الملف. تأكد من أن الملف بصيغة Excel صحيحة"


class EmptyWorkbookError(SheetParseError):
    default_message = "الملف لا يحتوي على أي أوراق عمل"


class EmptySheetError(SheetParseError):
    default_message = "الورقة المختارة فارغة"


class HeaderNotFoundError(SheetParseError):
    default_message = "تعذر تحديد صف العناوين في ورقة جدول العلامات"


class NoStudentsError(SheetParseError):
    default_message = "لم يتم العثور على أي طلبة في الملف"
