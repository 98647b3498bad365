from enum import Enum


class AgreementType(Enum):
    MSA = "MSA"
    SOW = "SOW"
    NDA = "NDA"

class AgreementStatus(Enum):
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"

class ProposalDecision(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
