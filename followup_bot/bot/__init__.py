"""Chat front end: parsing, routing and Slack transport."""
