"""NextStep progress engine: activity ingestion, AI quotas, roadmap progress and study stats."""
