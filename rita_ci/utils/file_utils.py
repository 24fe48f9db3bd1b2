#!/usr/bin/env python3
"""
File utilities for the CI runner.
Provides the small set of path operations the pipeline stages share.
"""

import hashlib
from pathlib import Path
from typing import Union


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.
    
    Args:
        path: Directory path to create
        
    Returns:
        Path object for the directory
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def remove_file(file_path: Union[str, Path]) -> bool:
    """
    Remove a file if it exists.
    
    Args:
        file_path: Path to file
        
    Returns:
        True if a file was removed, False if there was nothing to remove
    """
    path = Path(file_path)
    if not path.is_file():
        return False
        
    path.unlink()
    return True


def calculate_file_hash(file_path: Union[str, Path], algorithm: str = 'sha256') -> str:
    """
    Calculate hash of a file.
    
    Args:
        file_path: Path to file
        algorithm: Hash algorithm to use
        
    Returns:
        Hex digest of file hash
    """
    hash_obj = hashlib.new(algorithm)
    
    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(4096), b""):
            hash_obj.update(chunk)
            
    return hash_obj.hexdigest()


def get_file_size(file_path: Union[str, Path]) -> int:
    """Size of a file in bytes, 0 if it does not exist."""
    path = Path(file_path)
    if not path.exists():
        return 0
    return path.stat().st_size
