"""
Streamlit application for profile lead extraction.

Run with: streamlit run lead_extractor/app/main.py
"""
