"""Local Library: a server-rendered catalog of genres, authors, books and copies."""
