from prometheus_client import Counter, Histogram


REQ = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"])
REQ_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)
OTP_EVENTS = Counter("otp_events_total", "OTP lifecycle events", ["event"])
SMS_DISPATCH = Counter("sms_dispatch_total", "SMS dispatch outcomes", ["provider", "status"])
