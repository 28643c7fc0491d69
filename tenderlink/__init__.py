"""tenderlink — procurement opportunity ingestion and entity resolution."""
