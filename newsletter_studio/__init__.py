"""Newsletter Studio

Generates newsletters from a project's editorial settings, a newsletter's
links and notes, and the project's spreadsheet data, using a builtin AI
model or an external webhook.
"""

__version__ = "0.1.0"
