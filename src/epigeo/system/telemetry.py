class Telemetry:
    def __init__(self):
        self.records = []

    def log_record(self, rec: dict):
        rec["record_idx"] = len(self.records)
        self.records.append(rec)

    def summary(self) -> dict:
        accepted = sum(1 for r in self.records if r.get("valid"))
        return {"num_checks": len(self.records), "num_accepted": accepted,
                "num_rejected": len(self.records) - accepted}
