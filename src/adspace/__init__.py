"""Ad-space marketplace API.

Backend for the advertiser / property-owner marketplace. This package holds the
request authentication pipeline (bearer credential verification with ordered
fallback strategies and just-in-time user provisioning), the user account
routes built on top of it, and the runtime infrastructure shared by both.
"""

__version__ = "0.1.0"
