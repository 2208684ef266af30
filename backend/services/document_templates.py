"""
Caelex Compliance Core - Authorization Document Templates

Read-only catalog of the documents an operator must (or should) prepare for
an EU Space Act authorization application, keyed by operator type.

Operator types: SCO (spacecraft operator), LO (launch operator), LSO (launch
site operator), ISOS (in-space service operator), PDP (primary data
provider), TCO (third-country operator). "ALL" applies to every type.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple


class DocumentCategory(str, Enum):
    TECHNICAL = "technical"
    LEGAL = "legal"
    FINANCIAL = "financial"
    ENVIRONMENTAL = "environmental"
    SAFETY = "safety"


class EffortLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class DocumentTemplate:
    type: str
    name: str
    description: str
    article_ref: str
    required: bool
    applicable_to: Tuple[str, ...]
    category: str
    estimated_effort: str
    tips: Tuple[str, ...] = field(default_factory=tuple)

    def applies_to(self, operator_type: str) -> bool:
        return "ALL" in self.applicable_to or operator_type in self.applicable_to


C = DocumentCategory
L = EffortLevel

AUTHORIZATION_DOCUMENTS: Tuple[DocumentTemplate, ...] = (
    # Core application documents
    DocumentTemplate(
        "mission_description", "Mission Description",
        "Comprehensive description of the space mission including objectives, timeline, "
        "orbital parameters, and operational concept.",
        "Art. 7(2)(a)", True, ("SCO", "LO", "LSO", "ISOS", "ALL"), C.TECHNICAL.value, L.MEDIUM.value,
        ("Include detailed mission timeline with key milestones",
         "Specify orbital parameters (altitude, inclination, eccentricity)",
         "Include concept of operations (CONOPS) document"),
    ),
    DocumentTemplate(
        "technical_specs", "Technical Specifications",
        "Detailed technical specifications of the space object including design, subsystems, "
        "and performance characteristics.",
        "Art. 7(2)(b)", True, ("SCO", "LO", "LSO", "ALL"), C.TECHNICAL.value, L.HIGH.value,
        ("Include spacecraft bus specifications",
         "Provide power budget and thermal analysis"),
    ),
    DocumentTemplate(
        "debris_mitigation_plan", "Debris Mitigation Plan",
        "Plan for minimizing space debris generation during and after the mission.",
        "Art. 58-72", True, ("SCO", "LO", "ISOS", "ALL"), C.ENVIRONMENTAL.value, L.HIGH.value,
        ("Follow ISO 24113 Space Debris Mitigation standard",
         "Include passivation procedures",
         "Specify end-of-life disposal strategy (re-entry or graveyard orbit)"),
    ),
    DocumentTemplate(
        "insurance_proof", "Third-Party Liability Insurance",
        "Proof of third-party liability insurance coverage meeting minimum requirements.",
        "Art. 44-51", True, ("SCO", "LO", "LSO", "TCO", "ALL"), C.FINANCIAL.value, L.MEDIUM.value,
        ("Coverage must be valid for mission duration",
         "Include launch and in-orbit phases"),
    ),
    DocumentTemplate(
        "cybersecurity_assessment", "Cybersecurity Risk Assessment",
        "NIS2-aligned cybersecurity risk assessment covering ground segment, space segment, "
        "and communication links.",
        "Art. 74-95", True, ("SCO", "LO", "LSO", "ISOS", "PDP", "ALL"), C.SAFETY.value, L.HIGH.value,
        ("Include supply chain security assessment",
         "Specify encryption standards for TT&C"),
    ),
    DocumentTemplate(
        "eol_disposal_plan", "End-of-Life Disposal Plan",
        "Plan for spacecraft disposal at end of mission, including deorbit timeline and method.",
        "Art. 66-72", True, ("SCO", "ISOS", "ALL"), C.ENVIRONMENTAL.value, L.MEDIUM.value,
        ("Include propellant budget for disposal maneuvers",),
    ),
    DocumentTemplate(
        "efd", "Environmental Footprint Declaration",
        "Declaration of environmental impact including manufacturing, launch, and operations phases.",
        "Art. 96-100", False, ("SCO", "LO", "LSO", "ALL"), C.ENVIRONMENTAL.value, L.HIGH.value,
        ("Light regime entities have an extended deadline (2032)",
         "Include lifecycle carbon footprint"),
    ),

    # Legal documents
    DocumentTemplate(
        "legal_entity_proof", "Legal Entity Documentation",
        "Proof of legal establishment in an EU Member State or third country.",
        "Art. 6(1)", True, ("SCO", "LO", "LSO", "ISOS", "PDP", "ALL"), C.LEGAL.value, L.LOW.value,
        ("Include certificate of incorporation",),
    ),
    DocumentTemplate(
        "control_documentation", "Control & Ownership Documentation",
        "Documentation proving effective control and ownership structure of the operating entity.",
        "Art. 6(2)", True, ("SCO", "LO", "LSO", "ALL"), C.LEGAL.value, L.MEDIUM.value,
        ("Identify ultimate beneficial owners",),
    ),
    DocumentTemplate(
        "eu_representative", "EU Legal Representative",
        "Appointment of a legal representative established in the EU.",
        "Art. 14(2)", True, ("TCO",), C.LEGAL.value, L.MEDIUM.value,
        ("Representative must be established in EU", "Include power of attorney"),
    ),

    # Launch-specific documents
    DocumentTemplate(
        "launch_safety_assessment", "Launch Safety Assessment",
        "Safety assessment for launch operations including risk analysis and mitigation measures.",
        "Art. 17-21", True, ("LO", "LSO"), C.SAFETY.value, L.HIGH.value,
        ("Include flight termination system documentation", "Provide hazard analysis"),
    ),
    DocumentTemplate(
        "launch_site_license", "Launch Site License Application",
        "Application for launch site operating license including site safety assessments.",
        "Art. 17-21", True, ("LSO",), C.LEGAL.value, L.HIGH.value,
        ("Detail safety zones and exclusion areas",),
    ),

    # Financial documents
    DocumentTemplate(
        "financial_guarantee", "Financial Guarantee / Bond",
        "Financial guarantee or bond to cover liabilities beyond insurance coverage.",
        "Art. 48-51", False, ("SCO", "LO", "LSO", "ALL"), C.FINANCIAL.value, L.MEDIUM.value,
        ("May be required for high-risk missions",),
    ),
    DocumentTemplate(
        "financial_statements", "Financial Statements",
        "Audited financial statements demonstrating financial viability of the operator.",
        "Art. 7(2)(f)", True, ("SCO", "LO", "LSO", "ALL"), C.FINANCIAL.value, L.LOW.value,
        ("Include last 2-3 years of audited statements",),
    ),

    # Operational documents
    DocumentTemplate(
        "operations_manual", "Operations Manual",
        "Manual covering all operational procedures for the space mission.",
        "Art. 7(2)(c)", True, ("SCO", "ISOS", "ALL"), C.TECHNICAL.value, L.HIGH.value,
        ("Detail contingency procedures",),
    ),
    DocumentTemplate(
        "frequency_coordination", "Frequency Coordination Documentation",
        "ITU frequency filing and coordination documentation for spacecraft communications.",
        "Art. 7(2)(d)", True, ("SCO", "ISOS", "PDP", "ALL"), C.TECHNICAL.value, L.MEDIUM.value,
        ("Include ITU filing references",),
    ),
    DocumentTemplate(
        "ground_segment_docs", "Ground Segment Documentation",
        "Documentation of ground segment infrastructure including mission control and ground stations.",
        "Art. 7(2)(e)", True, ("SCO", "ISOS", "PDP", "ALL"), C.TECHNICAL.value, L.MEDIUM.value,
        ("List ground station locations and capabilities",),
    ),
)


def get_documents_for_operator_type(operator_type: str) -> List[DocumentTemplate]:
    return [t for t in AUTHORIZATION_DOCUMENTS if t.applies_to(operator_type)]


def get_required_documents(operator_type: str) -> List[DocumentTemplate]:
    return [t for t in get_documents_for_operator_type(operator_type) if t.required]


def get_documents_by_category(category: str) -> List[DocumentTemplate]:
    return [t for t in AUTHORIZATION_DOCUMENTS if t.category == category]
