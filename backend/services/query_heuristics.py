"""
Deterministic query classification and expansion for the PGPM domain.

Everything in this module is a pure function over the query text: no model
calls, no I/O. The retriever, relevance gate and generator all read the same
pattern families from here so that they agree on what a "follow-up" or a
"fee question" is.
"""
import re
from typing import Dict, List, Optional, Set, Tuple

# Known PGPM terms and initiatives
KNOWN_TERMS = (
    "abhyudaya", "docc", "sitaras", "samavesh", "intex",
    "aicte", "aacsb", "amba", "ppt", "cis",
    "mccombs", "insead", "cornell", "michigan",
    "barcelona", "reutlingen", "esic", "esb",
)

# Known terms that are specifically covered by indexed documents
SPECIFIC_TERMS = ("abhyudaya", "docc", "sitaras")

RELEVANT_KEYWORDS = (
    "spjimr", "pgpm", "post graduate programme", "management",
    "admission", "eligibility", "curriculum", "fees", "placement",
    "duration", "campus", "accreditation", "ranking", "faculty",
)

QUERY_CATEGORIES = (
    "eligibility", "admissions", "curriculum", "fees", "placements",
    "duration", "campus", "accreditation", "rankings", "faculty",
    "followup", "general",
)

CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "eligibility": ("eligibility", "criteria", "requirement", "qualify", "experience", "marks", "degree"),
    "admissions": ("admission", "apply", "application", "deadline", "process", "selection"),
    "curriculum": ("curriculum", "course", "subject", "major", "minor", "academic", "syllabus"),
    "fees": ("fees", "cost", "payment", "financial", "scholarship", "loan"),
    "placements": ("placement", "job", "salary", "company", "career", "recruitment"),
    "duration": ("duration", "length", "timeline", "phase", "semester"),
    "campus": ("campus", "location", "facility", "infrastructure", "hostel"),
    "accreditation": ("accreditation", "aacsb", "amba", "equis", "certification"),
    "rankings": ("ranking", "rank", "rating", "reputation", "financial times"),
    "faculty": ("faculty", "professor", "teacher", "staff", "instructor"),
}

FOLLOW_UP_PATTERNS = (
    re.compile(r"^(longer|more|elaborate|tell me more|expand|details?)$", re.IGNORECASE),
    re.compile(r"^(what else|any other|additional|anything else)$", re.IGNORECASE),
    re.compile(r"^(it|this|that|the program|the course)$", re.IGNORECASE),
    re.compile(r"^(give me|show me|tell me) (more|all|everything|details)$", re.IGNORECASE),
)

STATS_PATTERNS = (
    re.compile(r"\b(stats?|statistics|data|numbers|figures|all data)\b", re.IGNORECASE),
    re.compile(r"\b(give me all|show me all|tell me all)\b", re.IGNORECASE),
    re.compile(r"\b(complete (stats?|data|information))\b", re.IGNORECASE),
)

BROAD_PATTERNS = (
    re.compile(r"^(everything|tell me everything|all information)$", re.IGNORECASE),
    re.compile(r"^(complete|comprehensive|full) (info|information|details?)$", re.IGNORECASE),
    re.compile(r"^(overview|summary)$", re.IGNORECASE),
    re.compile(r"\b(tell me about|what is|what's) (pgpm|the program|this program)\b", re.IGNORECASE),
)

DURATION_INTENT = re.compile(r"\b(duration|how long|months?|length)\b", re.IGNORECASE)
SOCIAL_INTENT = re.compile(
    r"\b(abhyudaya|social\s*work|social\s*projects|docc|underprivileged|community"
    r"|development.*corporate.*citizenship)\b",
    re.IGNORECASE,
)
AMBIGUOUS_INTENT = re.compile(r"\b(overview|everything|about|info|information)\b", re.IGNORECASE)
DOMAIN_MENTION = re.compile(r"\b(pgpm|spjimr|mba)\b", re.IGNORECASE)

# "18-month", "15 month", "18 months"
MONTH_PATTERN = re.compile(r"(1[58])\s*-?month", re.IGNORECASE)

FEE_KEYWORDS = ("fee", "cost")
FEE_INDICATORS = ("fee", "cost", "rs.", "lakh", "rupees")
SOCIAL_INDICATORS = ("abhyudaya", "docc", "social", "community", "underprivileged", "citizenship")

# Metadata type filter, first match wins
TYPE_FILTER_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("admission", "eligibility"), "admissions"),
    (("fee", "cost", "payment"), "fees"),
    (("placement", "job", "salary"), "placements"),
    (("curriculum", "course", "subject"), "curriculum"),
)

# Document type preferred when its keyword appears in the query
TYPE_PREFERENCES: Dict[str, str] = {
    "admissions": "admission",
    "fees": "fee",
    "placements": "placement",
    "curriculum": "curriculum",
}

BASE_CONTEXT = "SPJIMR PGPM program management"

STATS_PRIMER = (
    "PGPM program statistics data numbers figures placement salary fees "
    "admission criteria duration curriculum comprehensive information"
)
BROAD_PRIMER = (
    "PGPM program complete information overview summary comprehensive details "
    "curriculum admission placement fees faculty campus facilities"
)
FOLLOW_UP_PRIMER = (
    "PGPM program detailed information comprehensive overview curriculum admission "
    "placement fees salary statistics faculty campus duration"
)

DOMAIN_EXPANSIONS: Dict[str, str] = {
    "curriculum": "curriculum courses subjects modules syllabus academic program structure",
    "course": "courses curriculum subjects academic program modules",
    "duration": "duration length time period months years program",
    "admission": "admission admissions eligibility requirements application process criteria",
    "eligibility": "eligibility criteria requirements qualification admission",
    "deadline": "deadline dates timeline admission application last date",
    "application": "application form process admission requirements procedure",
    "fees": "fees cost tuition payment structure scholarship financial aid",
    "cost": "cost fees expenses tuition financial charges",
    "scholarship": "scholarship financial aid funding assistance fees support",
    "payment": "payment fees cost installment structure financial",
    "placement": "placement job career opportunities salary companies recruitment",
    "salary": "salary placement packages compensation career opportunities",
    "companies": "companies placement recruiters employers opportunities",
    "career": "career placement opportunities job salary growth",
    "campus": "campus facilities infrastructure location accommodation hostel",
    "hostel": "hostel accommodation campus facilities residence",
    "facilities": "facilities infrastructure campus amenities services",
    "faculty": "faculty professors teachers teaching staff academics",
    "teaching": "teaching faculty professors pedagogy learning methodology",
}

SHORT_QUERY_EXPANSIONS: Dict[str, str] = {
    "fees": "PGPM program fees cost tuition structure payment financial",
    "admission": "PGPM admission eligibility requirements application process criteria",
    "curriculum": "PGPM curriculum courses subjects academic program structure",
    "placement": "PGPM placement job career opportunities salary companies",
    "duration": "PGPM program duration length time period months",
    "faculty": "PGPM faculty professors teachers teaching staff",
    "campus": "PGPM campus facilities infrastructure location",
    "eligibility": "PGPM eligibility criteria requirements qualification admission",
    "salary": "PGPM placement salary packages compensation career",
    "deadline": "PGPM admission deadline dates timeline application",
    "scholarship": "PGPM scholarship financial aid funding assistance fees",
    "stats": "PGPM statistics data placement salary admission numbers figures",
    "everything": "PGPM comprehensive information overview curriculum admission placement fees",
    "abhyudaya": (
        "PGPM Abhyudaya social projects community underprivileged local engagement "
        "development citizenship DoCC"
    ),
    "docc": "PGPM DoCC Development Corporate Citizenship social projects organizations India community work",
    "sitaras": "PGPM social projects community education learning experience Sitaras participants engagement",
}

MAX_ENHANCED_LENGTH = 200


def normalize(text: Optional[str]) -> str:
    """Lower-case and trim."""
    return (text or "").lower().strip()


def significant_words(text: str) -> List[str]:
    """Words longer than two characters."""
    return [word for word in normalize(text).split() if len(word) > 2]


def is_known_term(query: str) -> bool:
    return normalize(query) in KNOWN_TERMS


def is_specific_term(query: str) -> bool:
    """A single known term that indexed documents mention verbatim."""
    return normalize(query) in SPECIFIC_TERMS


def has_relevant_keywords(query: str) -> bool:
    q = normalize(query)
    return any(keyword in q for keyword in RELEVANT_KEYWORDS)


def mentions_domain(query: str) -> bool:
    return bool(DOMAIN_MENTION.search(query or ""))


def is_follow_up_query(query: str) -> bool:
    q = normalize(query)
    return any(pattern.search(q) for pattern in FOLLOW_UP_PATTERNS)


def is_stats_query(query: str) -> bool:
    return any(pattern.search(query or "") for pattern in STATS_PATTERNS)


def is_broad_information_query(query: str) -> bool:
    q = normalize(query)
    return any(pattern.search(q) for pattern in BROAD_PATTERNS)


def wants_duration(query: str) -> bool:
    return bool(DURATION_INTENT.search(query or ""))


def wants_social_impact(query: str) -> bool:
    return bool(SOCIAL_INTENT.search(query or ""))


def wants_fees(query: str) -> bool:
    q = normalize(query)
    return any(keyword in q for keyword in FEE_KEYWORDS)


def is_ambiguous_query(query: str) -> bool:
    """Overview-style wording, or two words or fewer."""
    return bool(AMBIGUOUS_INTENT.search(query or "")) or len((query or "").split()) <= 2


def suggest_categories(query: str) -> List[str]:
    """Every taxonomy category with at least one keyword hit, in taxonomy order."""
    q = normalize(query)
    return [
        category
        for category, keywords in CATEGORY_KEYWORDS.items()
        if any(keyword in q for keyword in keywords)
    ]


def infer_document_type(query: str) -> Optional[str]:
    """Metadata type tag implied by the query, if any."""
    q = normalize(query)
    for keywords, doc_type in TYPE_FILTER_RULES:
        if any(keyword in q for keyword in keywords):
            return doc_type
    return None


def month_mentions(text: str) -> Set[int]:
    """Month counts named as "15-month" / "18 months" style durations in text."""
    return {int(match.group(1)) for match in MONTH_PATTERN.finditer(text or "")}


def enhance_query(query: str) -> str:
    """
    Expand a query with domain vocabulary for similarity search.

    Specific, domain-anchored questions are returned unchanged. Stats,
    broad and follow-up requests get a fixed topic primer; very short
    queries use a keyword lookup; anything else collects the expansion of
    every topic it touches behind a base context phrase.
    """
    query_lower = normalize(query)
    query_words = significant_words(query)

    needs_enhancement = (
        len(query) < 20
        or len(query_words) < 3
        or ("pgpm" not in query_lower and "spjimr" not in query_lower)
        or is_follow_up_query(query)
        or is_stats_query(query)
        or is_broad_information_query(query)
    )
    if not needs_enhancement:
        return query

    if is_stats_query(query):
        return f"{STATS_PRIMER} {query}"
    if is_broad_information_query(query):
        return f"{BROAD_PRIMER} {query}"
    if is_follow_up_query(query):
        return f"{FOLLOW_UP_PRIMER} {query}"

    if len(query_words) <= 2:
        for keyword, expansion in SHORT_QUERY_EXPANSIONS.items():
            if keyword in query_lower:
                return f"{expansion} {query}"

    expansions = [BASE_CONTEXT]
    for topic, expansion in DOMAIN_EXPANSIONS.items():
        stem = topic[:4]
        if topic in query_lower or any(stem in word for word in query_words):
            expansions.append(expansion)

    enhanced = f"{' '.join(expansions)} {query}"
    if len(enhanced) > MAX_ENHANCED_LENGTH:
        return f"{BASE_CONTEXT} {query}"
    return enhanced
