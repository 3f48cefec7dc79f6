"""peer — connects to a jsontalk gateway over TCP."""
