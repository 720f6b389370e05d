"""Flask API server, SQL data source and change notifications."""
