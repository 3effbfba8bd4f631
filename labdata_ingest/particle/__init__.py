from .csv_parser import SIZE_CLASS_WINDOW, parse_particle_csv

__all__ = [
    "SIZE_CLASS_WINDOW",
    "parse_particle_csv",
]
