from app.schemas.auth import UserData, SignupRequest, SignupResponse, AccountPublic, LoginRequest, TokenResponse
from app.schemas.listings import ListingCreateRequest, ListingRecord, ExpireResponse
from app.schemas.claims import ClaimCreateRequest, ClaimRecord, SchedulePickupRequest
from app.schemas.stats import DonorSummary, RecipientSummary, PlatformStats
