"""warpack - stage a web application and package it as a .war."""

__version__ = "0.9.0"
