"""
Engine-wide constants.
"""

# Limit sentinel meaning "no cap"
UNLIMITED = -1

# Remaining-usage sentinel reported for unlimited features
UNLIMITED_REMAINING = 2 ** 63 - 1

# Usage warning thresholds (percent of limit)
WARNING_THRESHOLD_LOW = 60.0
WARNING_THRESHOLD_MEDIUM = 80.0
WARNING_THRESHOLD_HIGH = 90.0
WARNING_THRESHOLD_CRITICAL = 100.0

# Convenience predicates use strict comparison against these
APPROACHING_LIMIT_PERCENT = 80.0
SOFT_LIMIT_PERCENT = 90.0


class FeatureName:
    """Metered feature identifiers."""

    WATCHLISTS = "watchlists"
    ALERTS = "alerts"
    API_CALLS = "api_calls"
    PORTFOLIOS = "portfolios"
    AI_ANALYSIS = "ai_analysis"
    AI_INSIGHTS = "ai_insights"
    SUB_ACCOUNTS = "sub_accounts"
    CUSTOM_INDICATORS = "custom_indicators"
    DATA_RETENTION = "data_retention"
    WEBSOCKET_CONNECTIONS = "websocket_connections"
