"""State, text lines and chart data for the monitor's panels."""