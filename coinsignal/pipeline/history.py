from collections import OrderedDict, deque

from coinsignal.analysis.metrics import DerivedMetrics

DEFAULT_HISTORY_SIZE = 20
DEFAULT_MAX_ADDRESSES = 1_000


class SnapshotHistory:
    """Per-address sliding window of recent metrics, oldest first.

    Capacity is fixed; appending to a full window evicts the oldest entry.
    At most ``max_addresses`` windows are kept: a new address evicts the
    least recently updated one.
    """

    def __init__(
        self, maxlen: int = DEFAULT_HISTORY_SIZE, max_addresses: int = DEFAULT_MAX_ADDRESSES
    ) -> None:
        if maxlen < 1:
            raise ValueError(f"maxlen must be positive, got {maxlen}")
        if max_addresses < 1:
            raise ValueError(f"max_addresses must be positive, got {max_addresses}")
        self._maxlen = maxlen
        self._max_addresses = max_addresses
        self._windows: OrderedDict[str, deque[DerivedMetrics]] = OrderedDict()

    @property
    def maxlen(self) -> int:
        return self._maxlen

    @property
    def max_addresses(self) -> int:
        return self._max_addresses

    def append(self, address: str, metrics: DerivedMetrics) -> None:
        window = self._windows.get(address)
        if window is None:
            window = self._windows[address] = deque(maxlen=self._maxlen)
            while len(self._windows) > self._max_addresses:
                self._windows.popitem(last=False)
        else:
            self._windows.move_to_end(address)
        window.append(metrics)

    def get(self, address: str) -> tuple[DerivedMetrics, ...]:
        return tuple(self._windows.get(address, ()))

    def clear(self, address: str | None = None) -> None:
        if address is None:
            self._windows.clear()
        else:
            self._windows.pop(address, None)

    def __len__(self) -> int:
        return len(self._windows)

    def __contains__(self, address: object) -> bool:
        return address in self._windows
