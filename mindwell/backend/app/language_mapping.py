from __future__ import annotations

from typing import Dict, Optional

SUPPORTED_LANGUAGES = {"en", "hi"}

# Hindi answer words keyed by the canonical field they answer.
HINDI_MAPPING: Dict[str, Dict[str, str]] = {
    "mood": {
        "खुश": "happy",
        "सामान्य": "neutral",
        "उदास": "sad",
        "चिंतित": "anxious",
        "अवसादग्रस्त": "depressed",
        "खुशी": "happy",
        "सुखी": "happy",
        "प्रसन्न": "happy",
        "दुखी": "sad",
        "परेशान": "anxious",
        "तनावग्रस्त": "anxious",
        "निराश": "depressed",
        "हताश": "depressed",
    },
    "sleep_hours": {
        "एक": "1",
        "दो": "2",
        "तीन": "3",
        "चार": "4",
        "पांच": "5",
        "छह": "6",
        "सात": "7",
        "आठ": "8",
        "नौ": "9",
        "दस": "10",
    },
    "stress_level": {
        "कम": "low",
        "मध्यम": "medium",
        "अधिक": "high",
        "कम तनाव": "low",
        "मध्यम तनाव": "medium",
        "अधिक तनाव": "high",
        "तनाव नहीं": "low",
        "थोड़ा तनाव": "low",
        "ज्यादा तनाव": "high",
    },
    "academic_pressure": {
        "कम": "low",
        "मध्यम": "medium",
        "अधिक": "high",
        "कम दबाव": "low",
        "मध्यम दबाव": "medium",
        "अधिक दबाव": "high",
        "कोई दबाव नहीं": "low",
        "थोड़ा दबाव": "low",
        "ज्यादा दबाव": "high",
    },
    "social_support": {
        "कमजोर": "weak",
        "मध्यम": "medium",
        "मजबूत": "strong",
        "कमजोर सहायता": "weak",
        "मध्यम सहायता": "medium",
        "मजबूत सहायता": "strong",
        "कोई सहायता नहीं": "weak",
        "अच्छी सहायता": "strong",
    },
    "loneliness": {
        "अक्सर": "often",
        "कभी-कभी": "sometimes",
        "शायद ही कभी": "hardly",
        "हमेशा": "often",
        "कभी नहीं": "hardly",
        "कभी-कभार": "sometimes",
    },
    "confidence": {
        "कम": "low",
        "मध्यम": "medium",
        "अधिक": "high",
        "कम आत्मविश्वास": "low",
        "मध्यम आत्मविश्वास": "medium",
        "अधिक आत्मविश्वास": "high",
        "कोई आत्मविश्वास नहीं": "low",
        "अच्छा आत्मविश्वास": "high",
    },
    "hobby": {
        "संगीत": "music",
        "खेल": "sports",
        "पढ़ना": "reading",
        "यात्रा": "travelling",
        "कोई नहीं": "none",
        "गाना": "music",
        "नृत्य": "music",
        "फुटबॉल": "sports",
        "क्रिकेट": "sports",
        "बास्केटबॉल": "sports",
        "किताबें": "reading",
        "उपन्यास": "reading",
        "घूमना": "travelling",
        "सैर": "travelling",
    },
    "journal_writing": {
        "हाँ": "yes",
        "नहीं": "no",
        "हां": "yes",
        "जी हाँ": "yes",
        "बिल्कुल नहीं": "no",
        "कभी-कभी": "yes",
    },
    "willingness_for_professional_support": {
        "हाँ": "yes",
        "नहीं": "no",
        "हां": "yes",
        "जी हाँ": "yes",
        "बिल्कुल नहीं": "no",
        "शायद": "yes",
    },
}


def translate_value(field: str, value: object, language: Optional[str] = "en") -> object:
    """Map a Hindi answer to its English value; anything unmatched is returned as given."""
    if language != "hi" or not isinstance(value, str):
        return value
    mapping = HINDI_MAPPING.get(field)
    candidate = value.strip()
    if not mapping or not candidate:
        return value
    if candidate in mapping:
        return mapping[candidate]
    lowered = candidate.lower()
    for hindi, english in mapping.items():
        if hindi.lower() == lowered:
            return english
    for hindi, english in mapping.items():
        key = hindi.lower()
        if key in lowered or lowered in key:
            return english
    return value
