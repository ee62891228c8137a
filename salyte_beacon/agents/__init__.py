"""
AI Agents

- WaterAssistantAgent: Water safety question answering
"""
