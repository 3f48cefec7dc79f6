"""gateway — serves published jsontalk services over WebSocket and TCP."""
