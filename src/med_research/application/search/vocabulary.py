"""
Versioned keyword tables for query understanding, relevance and evidence grading.

Every heuristic word list used by the pipeline lives here so changes can be
reviewed in one place and bumped together with VOCABULARY_VERSION.
Single words are matched on word boundaries after light stemming; multi-word
entries are matched as phrases.
"""

from __future__ import annotations

import re

VOCABULARY_VERSION = "2025.1"


# =============================================================================
# Tokenization
# =============================================================================

STOP_WORDS: frozenset[str] = frozenset({
    "a", "about", "above", "after", "again", "against", "all", "am", "an", "and",
    "any", "are", "as", "at", "be", "because", "been", "before", "being", "best",
    "between", "both", "but", "by", "can", "could", "did", "do", "does", "doing",
    "during", "each", "few", "for", "from", "further", "good", "had", "has", "have",
    "having", "how", "i", "if", "in", "into", "is", "it", "its", "latest", "me",
    "more", "most", "my", "new", "no", "nor", "not", "of", "off", "on", "once",
    "only", "or", "other", "our", "out", "over", "own", "same", "should", "so",
    "some", "such", "than", "that", "the", "their", "them", "then", "there",
    "these", "they", "this", "those", "through", "to", "too", "under", "until",
    "up", "use", "used", "using", "very", "vs", "versus", "was", "we", "were",
    "what", "when", "where", "which", "while", "who", "whom", "why", "will",
    "with", "would", "you", "your", "tell", "know", "information", "evidence",
    "research", "study", "studies", "paper", "papers", "recent", "current",
    "he", "she", "let", "us",
})

# Negations whose stem is not the word before the apostrophe
IRREGULAR_CONTRACTIONS: dict[str, str] = {"can't": "can", "won't": "will", "shan't": "shall"}

_CONTRACTION_RE = re.compile(r"(?:n't|'s|'re|'ve|'ll|'d|'m|'t)$")

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:[-'][a-z0-9]+)*")


def stem(token: str) -> str:
    """Very light English plural stripping ("therapies" -> "therapy")."""
    token = token.lower().removesuffix("'s")
    if len(token) > 4 and token.endswith("ies"):
        return token[:-3] + "y"
    if len(token) > 3 and token.endswith("s") and not token.endswith(("ss", "us", "is", "sis")):
        return token[:-1]
    return token


def strip_contraction(token: str) -> str:
    """Drop a contraction or possessive suffix: "what's" -> "what", "don't" -> "do"."""
    if token in IRREGULAR_CONTRACTIONS:
        return IRREGULAR_CONTRACTIONS[token]
    return _CONTRACTION_RE.sub("", token)


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens, hyphenated compounds kept whole."""
    return _TOKEN_RE.findall(text.lower())


def token_set(text: str) -> set[str]:
    """Raw and stemmed tokens of ``text`` plus the parts of hyphenated compounds."""
    tokens: set[str] = set()
    for token in tokenize(text):
        tokens.add(token)
        tokens.add(stem(token))
        if "-" in token:
            for part in token.split("-"):
                if part:
                    tokens.add(part)
                    tokens.add(stem(part))
    return tokens


def contains_term(term: str, text: str, tokens: set[str]) -> bool:
    """True if ``term`` occurs in ``text`` (phrase) or ``tokens`` (single word)."""
    if " " in term:
        return re.search(rf"\b{re.escape(term)}s?\b", text) is not None
    return term in tokens or stem(term) in tokens


def matching_terms(terms: frozenset[str] | set[str], text: str, tokens: set[str]) -> set[str]:
    return {term for term in terms if contains_term(term, text, tokens)}


# =============================================================================
# Domain gate vocabulary
#
# Words that also carry a common non-medical meaning ("pressure", "plasma",
# "cell", "incidence", "outcome") are deliberately absent.
# =============================================================================

MEDICAL_TERMS: frozenset[str] = frozenset({
    # Care settings and roles
    "patient", "clinical", "clinician", "physician", "nurse", "nursing", "hospital",
    "hospitalization", "inpatient", "outpatient", "primary care", "intensive care",
    "icu", "emergency department", "healthcare", "health care", "medical", "medicine",
    "public health", "mental health",
    # Clinical activity
    "treatment", "therapy", "therapeutic", "diagnosis", "diagnostic", "prognosis",
    "symptom", "syndrome", "disorder", "disease", "comorbidity", "mortality",
    "morbidity", "chronic", "acute", "etiology", "pathophysiology", "pathology",
    "screening", "prophylaxis", "rehabilitation", "surgery", "surgical",
    "anesthesia", "anaesthesia", "transplant", "transplantation",
    # Pharmacology
    "drug", "medication", "dose", "dosage", "placebo", "pharmacological",
    "pharmacotherapy", "pharmacokinetic", "adverse event", "adverse effect",
    "side effect", "contraindication", "prescription", "analgesic", "opioid",
    "antibiotic", "antiviral", "vaccine", "vaccination", "statin", "aspirin",
    "metformin", "insulin", "sglt2", "glp-1", "anticoagulant", "chemotherapy",
    "radiotherapy", "immunotherapy", "triptan", "sumatriptan", "botulinum", "cgrp",
    "supplementation", "vitamin",
    # Conditions
    "cancer", "tumor", "tumour", "neoplasm", "oncology", "carcinoma", "leukemia",
    "lymphoma", "melanoma", "metastasis", "metastatic", "cardiovascular", "cardiac",
    "coronary", "myocardial", "infarction", "heart failure", "atrial fibrillation",
    "hypertension", "stroke", "thrombosis", "diabetes", "diabetic", "obesity",
    "cholesterol", "migraine", "headache", "pain", "epilepsy", "seizure", "dementia",
    "alzheimer", "parkinson", "multiple sclerosis", "depression", "depressive",
    "anxiety", "schizophrenia", "bipolar", "adhd", "autism", "suicide", "addiction",
    "asthma", "copd", "pneumonia", "respiratory", "pulmonary", "tuberculosis",
    "infection", "infectious", "sepsis", "hiv", "malaria", "influenza", "covid-19",
    "sars-cov-2", "hepatitis", "renal", "kidney", "hepatic", "liver", "cirrhosis",
    "gastrointestinal", "colorectal", "bowel", "arthritis", "osteoporosis",
    "fracture", "inflammation", "inflammatory", "autoimmune", "allergy", "allergic",
    "dermatitis", "eczema", "psoriasis", "glaucoma", "retinopathy", "pregnancy",
    "pregnant", "prenatal", "postpartum", "neonatal", "preterm", "pediatric",
    "paediatric", "menopause", "breastfeeding", "lactation", "smoking cessation",
    # Study designs and bodies of evidence
    "randomized", "randomised", "clinical trial", "cohort", "case-control",
    "systematic review", "meta-analysis", "guideline", "epidemiology",
    "epidemiological", "biomarker", "serum",
})

MEDICAL_VENUE_MARKERS: frozenset[str] = frozenset({
    "medicine", "medical", "clinical", "lancet", "jama", "bmj", "cochrane",
    "pediatrics", "paediatrics", "cardiology", "oncology", "neurology", "psychiatry",
    "surgery", "nursing", "health", "therapeutics", "pharmacology", "diabetes",
    "headache", "cephalalgia", "gastroenterology", "hepatology", "nephrology",
    "obstetrics", "gynecology", "dermatology", "infectious", "epidemiology",
})

# Off-domain markers: candidates carrying any of these need a clearly clinical
# context (OFF_DOMAIN_MIN_MEDICAL_TERMS distinct medical terms) to stay in domain.
OFF_DOMAIN_TERMS: frozenset[str] = frozenset({
    "density functional theory", "quantum", "astrophysics", "cosmology", "galaxy",
    "galaxies", "particle physics", "string theory", "semiconductor", "photovoltaic",
    "superconductor", "finite element", "cryptocurrency", "blockchain", "stock market",
    "supply chain", "marketing", "macroeconomic", "compiler", "software engineering",
    "geology", "seismic", "metallurgy", "aerodynamics", "tokamak",
})

# =============================================================================
# Query intent vocabulary
# =============================================================================

INTENT_QUERY_TRIGGERS: dict[str, frozenset[str]] = {
    "treatment": frozenset({
        "treatment", "treat", "treating", "therapy", "therapeutic", "drug",
        "medication", "manage", "management", "intervention", "efficacy",
        "effective", "effectiveness", "cure", "remedy", "dose",
    }),
    "prevention": frozenset({
        "prevent", "prevention", "preventing", "prophylaxis", "prophylactic",
        "vaccine", "vaccination", "avoid", "reduce risk", "risk reduction",
    }),
    "diagnosis": frozenset({
        "diagnosis", "diagnose", "diagnosing", "diagnostic", "test", "testing",
        "screening", "detect", "detection", "biomarker", "imaging",
        "sensitivity", "specificity",
    }),
    "prognosis": frozenset({
        "prognosis", "prognostic", "survival", "outcome", "life expectancy",
        "recurrence", "predict", "prediction",
    }),
    "etiology": frozenset({
        "cause", "causes", "etiology", "aetiology", "risk factor", "associated",
        "association", "exposure", "why",
    }),
}

# Checked in this order; first intent with a trigger wins.
INTENT_PRIORITY: tuple[str, ...] = ("treatment", "prevention", "diagnosis", "prognosis", "etiology")

INTERVENTIONAL_INTENTS: frozenset[str] = frozenset({"treatment", "prevention"})

INTENT_CANDIDATE_VOCABULARY: dict[str, frozenset[str]] = {
    "treatment": frozenset({
        "trial", "therapy", "therapeutic", "treatment", "intervention", "efficacy",
        "randomized", "randomised", "drug", "dose", "placebo", "management",
        "pharmacological",
    }),
    "prevention": frozenset({
        "prevention", "preventive", "prophylaxis", "prophylactic", "vaccine",
        "vaccination", "risk reduction", "intervention", "trial", "preventing",
    }),
    "diagnosis": frozenset({
        "diagnostic", "diagnosis", "sensitivity", "specificity", "accuracy",
        "screening", "detection", "biomarker", "receiver operating",
    }),
    "prognosis": frozenset({
        "prognosis", "prognostic", "survival", "mortality", "follow-up", "recurrence",
    }),
    "etiology": frozenset({
        "risk factor", "association", "exposure", "odds ratio", "hazard ratio",
        "etiology", "cohort",
    }),
}

# Descriptive/epidemiological work; penalized for interventional queries when
# no intervention vocabulary is present.
DESCRIPTIVE_TERMS: frozenset[str] = frozenset({
    "prevalence", "incidence", "epidemiology", "epidemiological", "burden",
    "cross-sectional", "descriptive", "survey", "trends", "demographic",
    "distribution", "characteristics",
})

# =============================================================================
# Concept expansion (bounded synonym alternation)
# =============================================================================

MAX_ALTERNATIVES_PER_CONCEPT = 3

CONCEPT_SYNONYMS: dict[str, tuple[str, ...]] = {
    "heart attack": ("myocardial infarction", "acute coronary syndrome"),
    "myocardial infarction": ("heart attack", "acute coronary syndrome"),
    "high blood pressure": ("hypertension",),
    "hypertension": ("high blood pressure",),
    "stroke": ("cerebrovascular accident", "cerebral infarction"),
    "migraine": ("migraine disorders", "migraine headache"),
    "diabetes": ("diabetes mellitus", "type 2 diabetes", "hyperglycemia"),
    "cancer": ("neoplasms", "tumor", "malignancy"),
    "covid": ("covid-19", "sars-cov-2", "coronavirus disease 2019"),
    "covid-19": ("sars-cov-2", "coronavirus disease 2019"),
    "depression": ("depressive disorder", "major depressive disorder"),
    "anxiety": ("anxiety disorders",),
    "statins": ("hydroxymethylglutaryl-coa reductase inhibitors", "statin therapy"),
    "sglt2 inhibitors": ("sodium-glucose cotransporter 2 inhibitors", "gliflozins"),
    "omega-3": ("fish oil", "n-3 fatty acids"),
    "fish oil": ("omega-3", "n-3 fatty acids"),
    "breastfeeding": ("breast feeding", "lactation"),
    "flu": ("influenza",),
    "influenza": ("flu",),
    "kidney disease": ("renal insufficiency", "nephropathy"),
    "obesity": ("overweight", "adiposity"),
    "dementia": ("alzheimer disease", "cognitive decline"),
    "asthma": ("bronchial asthma",),
    "adhd": ("attention deficit hyperactivity disorder",),
    "copd": ("chronic obstructive pulmonary disease",),
    "autism": ("autism spectrum disorder",),
    "high cholesterol": ("hypercholesterolemia", "hyperlipidemia"),
    "blood thinners": ("anticoagulants",),
    "painkillers": ("analgesics",),
    "back pain": ("low back pain", "lumbago"),
    # Intent words expand to their closest clinical synonyms
    "treatment": ("therapy", "management"),
    "therapy": ("treatment",),
    "prevention": ("prophylaxis",),
    "diagnosis": ("diagnostic accuracy",),
}

# =============================================================================
# Evidence classification patterns (checked from the top tier down)
# =============================================================================

SYSTEMATIC_REVIEW_PATTERNS: tuple[str, ...] = (
    r"\bsystematic (?:literature )?reviews?\b",
    r"\bmeta-?analys[ie]s\b",
    r"\bmeta-?regression\b",
    r"\bumbrella review\b",
    r"\bpooled analysis\b",
    r"\bcochrane database\b",
)

GUIDELINE_PATTERNS: tuple[str, ...] = (
    r"\bguidelines?\b",
    r"\bconsensus statement\b",
    r"\bpractice parameter\b",
    r"\bposition statement\b",
    r"\brecommendations? (?:for|on|from)\b",
)

RCT_PATTERNS: tuple[str, ...] = (
    r"\brandomi[sz]ed(?:,)? (?:\w+[- ]){0,3}(?:controlled )?trials?\b",
    r"\brandomi[sz]ed controlled\b",
    r"\brct\b",
    r"\bplacebo-controlled\b",
    r"\bdouble-blind(?:ed)?\b",
    r"\bphase (?:ii|iii|iv|2|3|4) (?:clinical )?trial\b",
)

TRIAL_REGISTRY_PATTERNS: tuple[str, ...] = (
    r"\bnct\d{8}\b",
    r"\bisrctn\d{6,}\b",
    r"\beudract(?: number)?:? ?\d{4}-\d{6}-\d{2}\b",
    r"\bactrn\d{14}\b",
    r"\bchictr[- ]?\w+\b",
)

OBSERVATIONAL_PATTERNS: tuple[str, ...] = (
    r"\bcohort\b",
    r"\bcase-control\b",
    r"\bcase control\b",
    r"\bprospective (?:\w+ )?study\b",
    r"\bretrospective (?:\w+ )?(?:study|analysis|review)\b",
    r"\blongitudinal\b",
    r"\bregistry-based\b",
)

CROSS_SECTIONAL_PATTERNS: tuple[str, ...] = (
    r"\bcross-sectional\b",
    r"\bcross sectional\b",
    r"\bsurvey\b",
    r"\bprevalence study\b",
)

CASE_REPORT_PATTERNS: tuple[str, ...] = (
    r"\bcase reports?\b",
    r"\bcase series\b",
    r"\bexpert opinion\b",
    r"\beditorial\b",
    r"\bcommentary\b",
    r"\bletter to the editor\b",
)

# Source-declared publication types (PubMed PT, CrossRef type, trial design).
PUBLICATION_TYPE_TIERS: dict[str, str] = {
    "meta-analysis": "1A",
    "systematic review": "1A",
    "practice guideline": "1B",
    "guideline": "1B",
    "consensus development conference": "1B",
    "randomized controlled trial": "2",
    "clinical trial, phase iii": "2",
    "clinical trial, phase iv": "2",
    "controlled clinical trial": "2",
    "observational study": "3",
    "comparative study": "3",
    "multicenter study": "3",
    "case reports": "5",
    "editorial": "5",
    "comment": "5",
    "letter": "5",
}
