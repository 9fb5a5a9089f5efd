"""Cache TTL and key prefix constants."""

# Cache TTL constants (in milliseconds)
TTL_TODAY = 5 * 60 * 1000  # 5 minutes - today's data is still accumulating
TTL_YESTERDAY = 60 * 60 * 1000  # 1 hour - may be revised by spam filtering
TTL_HISTORICAL = 24 * 60 * 60 * 1000  # 24 hours - settled data (>= 2 days old)
TTL_ACCOUNTS = 24 * 60 * 60 * 1000  # 24 hours - rarely changes
TTL_SITES = 60 * 60 * 1000  # 1 hour - status can change
TTL_ALERTS = 15 * 60 * 1000  # 15 minutes - important to catch quickly
TTL_POLICY_ISSUES = 30 * 60 * 1000  # 30 minutes - critical monitoring
TTL_PAYMENTS = 6 * 60 * 60 * 1000  # 6 hours - rarely changes
TTL_AD_UNITS = 60 * 60 * 1000  # 1 hour

# Cache key prefixes, one per logical operation: {prefix}:{md5(params)}
KEY_PREFIX_ACCOUNTS = "accounts"
KEY_PREFIX_SITES = "sites"
KEY_PREFIX_ALERTS = "alerts"
KEY_PREFIX_POLICY_ISSUES = "policyIssues"
KEY_PREFIX_PAYMENTS = "payments"
KEY_PREFIX_AD_UNITS = "adUnits"
KEY_PREFIX_REPORT = "report"
KEY_PREFIX_REPORT_CSV = "reportCsv"

# Account tag for entries that are not scoped to one account
GLOBAL_ACCOUNT_TAG = "global"
