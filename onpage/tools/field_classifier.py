"""
Field Classifier - semantic category of a form control or field

Keyword matching against multilingual vocabularies (English, French /
Spanish, Arabic), then input-subtype inference, then plain text.

Usage:
    from onpage.tools.field_classifier import FieldClassifier

    classifier = FieldClassifier()
    category = classifier.classify(document.query_one("#signup-mail"), document)
    # FieldCategory.EMAIL
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from onpage.core.document import Document, NodeRef, quote_attribute


class FieldCategory(str, Enum):
    NAME = "name"
    EMAIL = "email"
    PHONE = "phone"
    ADDRESS = "address"
    DATE = "date"
    PRICE = "price"
    DESCRIPTION = "description"
    TITLE = "title"
    CONTENT = "content"
    IMAGE = "image"
    LINK = "link"
    CATEGORY = "category"
    STATUS = "status"
    ID = "id"
    QUANTITY = "quantity"
    TEXT = "text"


# Tested in this order; first substring hit wins
SEMANTIC_VOCABULARY: Tuple[Tuple[FieldCategory, Tuple[str, ...]], ...] = (
    (FieldCategory.NAME, ("name", "fullname", "username", "user", "nom", "nombre", "اسم", "الاسم")),
    (FieldCategory.EMAIL, ("email", "mail", "e-mail", "correo", "بريد", "ايميل")),
    (FieldCategory.PHONE, ("phone", "tel", "mobile", "telephone", "celular", "هاتف", "جوال", "موبايل")),
    (FieldCategory.ADDRESS, ("address", "location", "street", "city", "dirección", "عنوان", "موقع")),
    (FieldCategory.DATE, ("date", "time", "datetime", "fecha", "تاريخ", "وقت")),
    (FieldCategory.PRICE, ("price", "cost", "amount", "precio", "سعر", "مبلغ", "تكلفة")),
    (FieldCategory.DESCRIPTION, ("description", "desc", "details", "descripción", "وصف", "تفاصيل")),
    (FieldCategory.TITLE, ("title", "heading", "header", "título", "عنوان", "رأس")),
    (FieldCategory.CONTENT, ("content", "text", "body", "contenido", "محتوى", "نص")),
    (FieldCategory.IMAGE, ("image", "img", "photo", "picture", "imagen", "صورة")),
    (FieldCategory.LINK, ("link", "url", "href", "enlace", "رابط")),
    (FieldCategory.CATEGORY, ("category", "type", "class", "categoría", "فئة", "نوع", "تصنيف")),
    (FieldCategory.STATUS, ("status", "state", "condition", "estado", "حالة", "وضع")),
    (FieldCategory.ID, ("id", "identifier", "code", "número", "رقم", "معرف")),
    (FieldCategory.QUANTITY, ("quantity", "qty", "count", "cantidad", "كمية", "عدد")),
)

INPUT_TYPE_FALLBACK: Dict[str, FieldCategory] = {
    "email": FieldCategory.EMAIL,
    "tel": FieldCategory.PHONE,
    "date": FieldCategory.DATE,
    "datetime": FieldCategory.DATE,
    "datetime-local": FieldCategory.DATE,
    "number": FieldCategory.QUANTITY,
    "url": FieldCategory.LINK,
}


def find_label(control: NodeRef, document: Optional[Document] = None) -> Optional[str]:
    """
    Label text for a control.
    Order: label[for=id] -> nearest ancestor label -> aria-label -> None.
    """
    if control.id and document is not None:
        label = document.query_one(f"label[for={quote_attribute(control.id)}]")
        if label is not None:
            return label.text

    parent_label = control.closest("label")
    if parent_label is not None:
        return parent_label.text

    aria_label = control.get("aria-label")
    if aria_label:
        return aria_label

    return None


class FieldClassifier:
    """Maps controls to a FieldCategory."""

    def __init__(self, vocabulary: Tuple[Tuple[FieldCategory, Tuple[str, ...]], ...] = SEMANTIC_VOCABULARY):
        self.vocabulary = vocabulary

    def evidence(self, control: NodeRef, document: Optional[Document] = None) -> str:
        """Lower-cased name, id, placeholder and label text."""
        label = find_label(control, document) or ""
        parts: List[str] = [
            control.get("name", "") or "",
            control.id,
            control.get("placeholder", "") or "",
            label,
        ]
        return " ".join(p for p in parts if p).lower()

    def classify_text(self, text: str) -> Optional[FieldCategory]:
        """First category with a keyword contained in text, or None."""
        text = (text or "").lower()
        if not text:
            return None
        for category, keywords in self.vocabulary:
            for keyword in keywords:
                if keyword.lower() in text:
                    return category
        return None

    def classify(self, control: NodeRef, document: Optional[Document] = None) -> FieldCategory:
        category = self.classify_text(self.evidence(control, document))
        if category is not None:
            return category

        fallback = INPUT_TYPE_FALLBACK.get(control.input_type)
        if fallback is not None:
            return fallback

        return FieldCategory.TEXT
