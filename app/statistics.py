from app.models import DisplayStatistics

# Placeholder figures for dashboards. They are not measured from real traffic.
TOTAL_ANALYZED = 15847
VIOLATIONS_DETECTED = 2341
ACCURACY_RATE = 98.7
AVG_RESPONSE_TIME_MS = 245.0


def get_statistics() -> DisplayStatistics:
    return DisplayStatistics(
        total_analyzed=TOTAL_ANALYZED,
        violations_detected=VIOLATIONS_DETECTED,
        accuracy_rate=ACCURACY_RATE,
        avg_response_time_ms=AVG_RESPONSE_TIME_MS,
        illustrative=True,
    )
