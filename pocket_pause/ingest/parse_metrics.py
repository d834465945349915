"""In-process parse statistics for operational visibility."""

from collections import defaultdict


class ParseMetrics:
    """
    Running parse counters.

    ``total_parses`` counts every request, cache hits included, so the
    hit rate stays within [0, 1]. ``avg_parse_time`` covers uncached
    parses only.
    """

    def __init__(self):
        self.total_parses = 0
        self.cache_hits = 0
        self._parse_count = 0
        self._parse_time_total = 0.0
        self._method_counts: dict[str, int] = defaultdict(int)
        self._method_times: dict[str, float] = defaultdict(float)

    def record_cache_hit(self):
        self.total_parses += 1
        self.cache_hits += 1

    def record_parse(self, method: str, parse_time_ms: float):
        self.total_parses += 1
        self._parse_count += 1
        self._parse_time_total += parse_time_ms
        self._method_counts[method] += 1
        self._method_times[method] += parse_time_ms

    @property
    def avg_parse_time(self) -> float:
        if not self._parse_count:
            return 0.0
        return self._parse_time_total / self._parse_count

    @property
    def cache_hit_rate(self) -> float:
        if not self.total_parses:
            return 0.0
        return self.cache_hits / self.total_parses

    def snapshot(self) -> dict:
        return {
            "total_parses": self.total_parses,
            "cache_hits": self.cache_hits,
            "avg_parse_time": round(self.avg_parse_time, 2),
            "cache_hit_rate": round(self.cache_hit_rate, 4),
            "method_averages": [
                {
                    "method": method,
                    "avg_time": round(self._method_times[method] / count, 2),
                    "count": count,
                }
                for method, count in self._method_counts.items()
            ],
        }

    def reset(self):
        self.__init__()
