"""
Default delivery phases created when a pipeline is accepted.
Phase weights sum to 100; item weights inside a phase sum to the phase weight.
"""

DEFAULT_PHASES = [
    {
        "phase_type": "KHOI_TAO_PLAN",
        "name": "Khởi tạo & Lập kế hoạch",
        "weight": 50,
        "order_index": 0,
        "items": [
            {"name": "Intake & Brief", "weight": 5, "pic": "Sale", "support": "Leader/Team MKT", "expected_output": "Brief hoàn chỉnh"},
            {"name": "Discovery & Audit", "weight": 5, "pic": "Sale/Leader", "support": "Account/Planner", "expected_output": "Audit report"},
            {"name": "Proposal & Presentation", "weight": 25, "pic": "Planner", "support": "Account/Team", "expected_output": "Proposal deck"},
            {"name": "Pitching Round", "weight": 15, "pic": "Sale", "support": "Account/Planner", "expected_output": "Client approval"},
        ],
    },
    {
        "phase_type": "SETUP_CHUAN_BI",
        "name": "Setup & Chuẩn bị",
        "weight": 10,
        "order_index": 1,
        "items": [
            {"name": "Internal Kick-off", "weight": 2, "pic": "Planner", "support": "Team", "expected_output": "Kick-off notes"},
            {"name": "Client Kick-off", "weight": 2, "pic": "Sale", "support": "Account/Team", "expected_output": "Meeting minutes"},
            {"name": "Campaign Planning & Setup", "weight": 6, "pic": "Media/Creative", "support": "Account", "expected_output": "Campaign setup complete"},
        ],
    },
    {
        "phase_type": "VAN_HANH_TOI_UU",
        "name": "Vận hành & Tối ưu",
        "weight": 30,
        "order_index": 2,
        "items": [
            {"name": "Realtime Dashboard", "weight": 7.5, "pic": "Media", "support": "Planner", "expected_output": "Dashboard live"},
            {"name": "Data Analysis", "weight": 7.5, "pic": "Account", "support": "Planner", "expected_output": "Analysis report"},
            {"name": "Weekly Sync", "weight": 7.5, "pic": "Account", "support": "Sale", "expected_output": "Weekly report"},
            {"name": "Client Reporting", "weight": 7.5, "pic": "Account", "support": "Team", "expected_output": "Client report"},
        ],
    },
    {
        "phase_type": "TONG_KET",
        "name": "Tổng kết",
        "weight": 10,
        "order_index": 3,
        "items": [
            {"name": "Performance Review", "weight": 5, "pic": "Media", "support": "Planner", "expected_output": "Review report"},
            {"name": "BBNT & Renewal", "weight": 5, "pic": "Planner", "support": "Account", "expected_output": "BBNT signed"},
        ],
    },
]
