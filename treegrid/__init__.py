"""
Editable hierarchical grids for Django.

Release logic:
 1. Remove ".devX" from __version__ (below)
 2. git add treegrid/__init__.py
 3. git commit -m 'Bump to <version>'
 4. git tag <version>
 5. git push --tags
 6. python -m build
 7. twine upload dist/*
 8. bump the version, append ".dev0" to __version__
"""
__version__ = '1.0.0'
