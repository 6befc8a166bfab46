"""Network engine: resolution, TLS inspection, classifiers and payload probes."""
