"""
Application-wide constants
"""

# Offer lifecycle
OFFER_PENDING = "PENDING"
OFFER_ACCEPTED = "ACCEPTED"
OFFER_REJECTED = "REJECTED"
OFFER_COMPLETED = "COMPLETED"

OFFER_STATUSES = (OFFER_PENDING, OFFER_ACCEPTED, OFFER_REJECTED, OFFER_COMPLETED)
OFFER_DECISIONS = (OFFER_ACCEPTED, OFFER_REJECTED)

# Listing lifecycle
LISTING_DRAFT = "DRAFT"
LISTING_ACTIVE = "ACTIVE"
LISTING_SOLD = "SOLD"
LISTING_ARCHIVED = "ARCHIVED"

LISTING_STATUSES = (LISTING_DRAFT, LISTING_ACTIVE, LISTING_SOLD, LISTING_ARCHIVED)
LISTING_TYPES = ("PRODUCT", "SERVICE")

# User roles
ROLE_USER = "USER"
ROLE_MODERATOR = "MODERATOR"
ROLE_ADMIN = "ADMIN"

# KYC review
KYC_PENDING = "PENDING"
KYC_APPROVED = "APPROVED"
KYC_REJECTED = "REJECTED"

# Image uploads
ALLOWED_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")

# Notification event names pushed over the websocket channel
EVENT_NEW_OFFER = "new_offer"
EVENT_OFFER_RESPONSE = "offer_response"
EVENT_OFFER_COMPLETED = "offer_completed"
EVENT_NEW_MESSAGE = "new_message"
EVENT_UPLOAD_PROGRESS = "upload_progress"
EVENT_KYC_REVIEWED = "kyc_reviewed"
