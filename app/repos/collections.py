"""Firestore collection names.

Firestore creates collections on first write, so these constants are the only
"schema" the store has.
"""

COLLECTION_OTP = "otpVerifications"
COLLECTION_USERS = "users"
COLLECTION_NEWSLETTER = "newsletterSubscribers"

# sub-collection under users/{id}
SUBCOLLECTION_WISHLIST = "wishlist"
