"""Long-running loop workers"""
