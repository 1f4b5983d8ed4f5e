"""
Utils package.

Lambda response helpers, handler decorators and scan performance tracking.
All monetary values cross the JSON boundary through DecimalEncoder.
"""
