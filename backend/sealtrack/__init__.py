"""SealTrack: custody tracking for sealed exam material."""
