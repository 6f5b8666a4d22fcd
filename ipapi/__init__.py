"""
IP geolocation API enriched with GeoNames country data.
"""
APP_NAME = "ipapi"
APP_VERSION = "1.0.2"
