from importlib import import_module

modules = [
    'auth',
    'users',
    'mentors',
    'startups',
    'engagements',
    'assignments',
    'availability',
    'sessions',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules
