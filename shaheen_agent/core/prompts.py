from __future__ import annotations

from .catalogue import COMPANY_NAME


DRAFTING_RULES = [
    f'ابدأ دائماً بترويسة الشركة: "# {COMPANY_NAME}"',
    "استخدم تنسيق Markdown مع عناوين واضحة ومنظمة",
    "أضف البنود القانونية الضرورية حتى لو لم يذكرها المستخدم",
    "اجعل المستند جاهزاً للطباعة بتنسيق مناسب",
    "أضف قسم التواقيع في النهاية",
    "استخدم اللغة العربية الفصحى والمصطلحات القانونية الصحيحة",
    "تأكد من تضمين تاريخ اليوم والمعلومات القانونية المناسبة",
    "اجعل المستند متوافقاً مع الأنظمة السعودية",
]


def build_system() -> str:
    return f'مهمتك هي العمل كمستشار قانوني وتجاري خبير ومتخصص في الأنظمة السعودية لـ "{COMPANY_NAME}".'


def build_document_prompt(doc_type: str, request_text: str) -> str:
    """Single prompt carrying the advisor persona, the document type and the collected answers."""
    rules = "\n".join(f"{i}. {rule}" for i, rule in enumerate(DRAFTING_RULES, start=1))
    return (
        f"{build_system()}\n\n"
        "**المهمة الأساسية:** إنشاء مسودة احترافية للمستند المطلوب بناءً على التفاصيل التالية.\n\n"
        f"**نوع المستند المطلوب:** {doc_type}\n"
        f"**طلب المستخدم:** {request_text}\n\n"
        "**تعليمات صارمة:**\n"
        f"{rules}\n\n"
        "أنشئ المستند كاملاً الآن:"
    )
