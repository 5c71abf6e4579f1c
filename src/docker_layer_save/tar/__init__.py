"""Docker save archive handling: manifests, exclusion, extraction and re-archival."""
