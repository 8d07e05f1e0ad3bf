# Dashboard API
