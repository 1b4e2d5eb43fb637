from partisipro_identity.routes.topics import router as topics_router
from partisipro_identity.routes.issuers import router as issuers_router
from partisipro_identity.routes.identities import router as identities_router
from partisipro_identity.routes.claims import router as claims_router
from partisipro_identity.routes.compliance import router as compliance_router

__all__ = ["topics_router", "issuers_router", "identities_router", "claims_router", "compliance_router"]
