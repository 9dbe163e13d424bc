"""Score-tracking backend: players, game sessions and leaderboards."""
