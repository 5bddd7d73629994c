# helpers/logger.py
import csv
import datetime
import json
import pathlib

import matplotlib.pyplot as plt


class RunLogger:
    """
    Writes per-step metric rows of a training run to history.csv and
    history.json under <root>/<tag>_<timestamp>/, and plots metric curves.
    """
    def __init__(self, root="runs", tag="run"):
        ts = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
        self.root = pathlib.Path(root)
        self.dir = self.root / f"{tag}_{ts}"
        self.dir.mkdir(parents=True, exist_ok=True)
        self.csv_path = self.dir / "history.csv"
        self.json_path = self.dir / "history.json"
        self.metrics = []  # list of dicts per step
        self._csv_fields = None

    # ---------- logging ----------
    def log_step(self, step, **kwargs):
        row = {"step": int(step), **{k: float(v) for k, v in kwargs.items()}}
        self.metrics.append(row)
        with open(self.csv_path, "a", newline="") as f:
            if self._csv_fields is None:
                self._csv_fields = list(row.keys())
                writer = csv.DictWriter(f, fieldnames=self._csv_fields, extrasaction="ignore")
                writer.writeheader()
            else:
                writer = csv.DictWriter(f, fieldnames=self._csv_fields, extrasaction="ignore")
            writer.writerow(row)
        return row

    def log_metric(self, step, metric):
        """Log the running averages held by a Metric."""
        return self.log_step(step, **metric.as_dict())

    def save_json(self):
        with open(self.json_path, "w") as f:
            json.dump(self.metrics, f, indent=2)
        return str(self.json_path)

    def history(self, key):
        return [row[key] for row in self.metrics if key in row]

    # ---------- plotting ----------
    def _plots_dir(self, subdir):
        out = self.dir / subdir
        out.mkdir(parents=True, exist_ok=True)
        return out

    def plot_metric(self, key, tag="run", subdir="plots"):
        """
        Saves the curve of one logged metric as <key>_<tag>.png.
        Returns the path, or None when nothing was logged under key.
        """
        values = self.history(key)
        if len(values) == 0:
            return None
        steps = [row["step"] for row in self.metrics if key in row]
        outdir = self._plots_dir(subdir)
        plt.figure()
        plt.plot(steps, values, label=key)
        plt.xlabel("Step")
        plt.ylabel(key)
        plt.title(f"{key} vs Steps ({tag})")
        plt.legend()
        plt.tight_layout()
        path = outdir / f"{key.replace(' ', '_').lower()}_{tag}.png"
        plt.savefig(path, dpi=160)
        plt.close()
        return str(path)
