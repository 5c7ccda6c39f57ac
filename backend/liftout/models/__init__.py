"""Database models"""
from liftout.models.user import User
from liftout.models.team import Team, TeamMember, MemberRole, MemberStatus
from liftout.models.company import Company, CompanyUser, CompanyRole
from liftout.models.opportunity import Opportunity, OpportunityStatus, OpportunityVisibility
from liftout.models.application import Application, ApplicationStatus, BLOCKING_STATUSES
from liftout.models.offer import Offer, OfferStatus
from liftout.models.application_event import ApplicationEvent
from liftout.models.expression_of_interest import ExpressionOfInterest, EOIStatus, PartyType, InterestLevel
from liftout.models.notification import Notification

__all__ = [
    "User",
    "Team",
    "TeamMember",
    "MemberRole",
    "MemberStatus",
    "Company",
    "CompanyUser",
    "CompanyRole",
    "Opportunity",
    "OpportunityStatus",
    "OpportunityVisibility",
    "Application",
    "ApplicationStatus",
    "BLOCKING_STATUSES",
    "Offer",
    "OfferStatus",
    "ApplicationEvent",
    "ExpressionOfInterest",
    "EOIStatus",
    "PartyType",
    "InterestLevel",
    "Notification",
]
