"""Database layer for Asset Hub."""
