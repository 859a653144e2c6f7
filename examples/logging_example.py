"""Demonstrates how to enable and configure logging in rfkit.

rfkit logging is disabled by default. Users opt in by calling ``enable_logging()``,
which returns a ``LoggingHandle``. The handle can be used as a context manager
(``with enable_logging(): ...``) or disabled manually via ``handle.disable()``.
When the last active handle is disabled, rfkit logging is automatically turned off.

Key concepts shown here:

- ``level``: controls the minimum log level. The custom ``PIPELINE`` level
  (numeric value 25, between INFO and WARNING) prints one line per training
  stage and is the default.
- ``log_format``: ``"short"`` shows ``timestamp | level | function - message``;
  ``"full"`` adds the module and line number.
- Errors are raised, not logged: an unseen category at prediction time raises
  ``UnseenCategoryError`` and leaves the session intact.
- Automatic cleanup: logging is re-disabled when the context manager exits.
"""

import numpy as np

from rfkit import FeatureConfig, ModelSession, enable_logging, parse_csv
from rfkit.exceptions import UnseenCategoryError

rng = np.random.default_rng(7)
lines = ["x1,x2,region,label"]
for i in range(40):
    label = "A" if i % 2 == 0 else "B"
    x1 = rng.uniform(1, 10) if label == "A" else rng.uniform(100, 110)
    lines.append(f"{x1:.2f},{rng.normal():.3f},{'north' if i % 3 else 'south'},{label}")
dataset = parse_csv("\n".join(lines))

with enable_logging(level="PIPELINE", log_format="full"):
    session = ModelSession(rng=rng)
    version = session.train(
        dataset,
        FeatureConfig(features=("x1", "x2", "region"), target="label"),
    )
    print(f"\nTrained {version.version}: accuracy {version.model.metrics.accuracy:.1f}%\n")

    result = session.predict({"x1": 4.0, "x2": 0.1, "region": "north"})
    print(f"Prediction: {result.label} (confidence {result.confidence:.0%})\n")

    try:
        session.predict({"x1": 4.0, "x2": 0.1, "region": "west"})
    except UnseenCategoryError as exc:
        print(f"Rejected: {exc}\n")

# Logging is disabled again here
session.predict({"x1": 105.0, "x2": -0.3, "region": "south"})
print(session.export_predictions())
