"""
Nexus AMS installer.

Provisions the web, database and worker stack for Nexus AMS and Nexus AMS
Subs, in stages selected by an install profile.
"""
