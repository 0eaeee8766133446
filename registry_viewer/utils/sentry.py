import sentry_sdk

from registry_viewer.settings import settings

SCRUBBED_HEADERS = {"authorization", "cookie", "proxy-authorization"}


def scrub_credentials(event, hint):
    """Drop credential headers from the request attached to an event."""
    headers = event.get("request", {}).get("headers")
    if isinstance(headers, dict):
        event["request"]["headers"] = {
            name: value
            for name, value in headers.items()
            if name.lower() not in SCRUBBED_HEADERS
        }
    return event


def init_sentry():
    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            traces_sample_rate=0.01,
            send_default_pii=False,
            environment=settings.SENTRY_ENVIRONMENT,
            before_send=scrub_credentials,
        )
