class Metric:
    """Running averages of named scalar values (e.g. reconstruction error)."""

    def __init__(self):
        self._sums = {}
        self._counts = {}

    def add(self, name, value):
        self._sums[name] = self._sums.get(name, 0.0) + float(value)
        self._counts[name] = self._counts.get(name, 0) + 1

    def get(self, name):
        if name not in self._counts:
            raise KeyError(name)
        return self._sums[name] / self._counts[name]

    def count(self, name):
        return self._counts.get(name, 0)

    def reset(self):
        self._sums.clear()
        self._counts.clear()

    def as_dict(self):
        return {name: self.get(name) for name in self._counts}

    def to_string(self):
        return ", ".join(f"{name} : {value:.6f}" for name, value in self.as_dict().items())

    def __len__(self):
        return len(self._counts)

    def __repr__(self):
        return f"Metric({self.to_string()})"
