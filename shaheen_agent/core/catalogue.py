from __future__ import annotations
from typing import Dict, List


COMPANY_NAME = "شركة أعمال الشاهين للمقاولات"

DOCUMENT_TYPES: List[str] = [
    "عقد إيجار سقالات",
    "محضر بدء إيجار الشدات المعدنية",
    "عقد عمالة",
    "محضر تسليم واستلام",
    "مذكرة مطالبة مالية",
    "إشعار تسليم",
    "محضر إرجاع وفحص",
]

DEFAULT_DOC_TYPE = DOCUMENT_TYPES[0]

CLARIFICATION_QUESTIONS: Dict[str, List[str]] = {
    "عقد إيجار سقالات": [
        "ما هو اسم المستأجر الكامل؟",
        "ما هو اسم المشروع وموقعه بالتفصيل؟",
        "ما هي مدة الإيجار المطلوبة؟",
        "ما هو المبلغ المتفق عليه (شهري/يومي)؟",
        "هل يشمل الإيجار التركيب والفك؟",
    ],
    "محضر بدء إيجار الشدات المعدنية": [
        "ما هو اسم المستأجر؟",
        "ما هو اسم المشروع وموقعه؟",
        "ما هو رقم العقد المرجعي؟",
        "ما هو تاريخ التركيب المخطط؟",
        "ما هو سعر الإيجار الشهري المتفق عليه؟",
        "ما هو اسم المهندس المشرف؟",
    ],
    "عقد عمالة": [
        "ما هو اسم الموظف أو العامل؟",
        "ما هو المنصب أو طبيعة العمل؟",
        "ما هو الراتب أو الأجر المتفق عليه؟",
        "ما هو تاريخ بداية العمل؟",
        "ما هي مدة العقد؟",
    ],
}

GENERIC_QUESTIONS: List[str] = [
    "ما هي التفاصيل الأساسية للمستند؟",
    "من هم الأطراف المعنية؟",
    "ما هي المدة الزمنية المطلوبة؟",
    "ما هي القيم المالية المتفق عليها؟",
]

REUSE_QUESTION = "لاحظت أنك أنشأت مستندات مشابهة. هل تريد استخدام نفس التفاصيل أم تحديثها؟"

# Assistant messages
GREETING = "مرحباً! أنا مساعدك الذكي لإنشاء {doc_type}. "
GREETING_SIMILAR = "لاحظت أنك أنشأت مستندات مشابهة من قبل. "
GREETING_PROMPT = "يرجى وصف ما تحتاجه بالتفصيل، وسأطرح عليك بعض الأسئلة التوضيحية لإنشاء أفضل مستند ممكن."
ANALYSING = "جاري تحليل طلبك وإعداد الأسئلة التوضيحية..."
QUESTIONS_INTRO = "ممتاز! لإنشاء أفضل مستند ممكن، أحتاج لبعض التوضيحات:"
QUESTIONS_OUTRO = "يرجى الإجابة على الأسئلة واحداً تلو الآخر، أو يمكنك الإجابة عليها جميعاً في رسالة واحدة."
ANALYSIS_ERROR = "حدث خطأ في تحليل طلبك. يرجى المحاولة مرة أخرى."
ANSWER_THANKS = "شكراً لك! يرجى الإجابة على باقي الأسئلة."
ANSWERS_COMPLETE = "ممتاز! تم استلام جميع المعلومات. جاري إنشاء المستند..."
GENERATION_SUCCESS = "تم إنشاء المستند بنجاح! يمكنك مراجعته أدناه."
GENERATION_ERROR = "حدث خطأ في إنشاء المستند: {reason}. يرجى المحاولة مرة أخرى."
EMPTY_CONTENT = "لم يتم إنشاء محتوى صالح من الخدمة"
UNKNOWN_ERROR = "حدث خطأ غير معروف"


def clarification_questions(doc_type: str, similar_found: bool = False) -> List[str]:
    """Ordered questions for a document type; a fresh list on every call."""
    questions = list(CLARIFICATION_QUESTIONS.get(doc_type, GENERIC_QUESTIONS))
    if similar_found:
        questions.append(REUSE_QUESTION)
    return questions


def greeting(doc_type: str, similar_found: bool) -> str:
    text = GREETING.format(doc_type=doc_type)
    if similar_found:
        text += GREETING_SIMILAR
    return text + GREETING_PROMPT
