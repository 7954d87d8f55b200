"""leak-hunter: find processes whose memory keeps growing."""
